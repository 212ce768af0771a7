#    line_program.py
#        Runs the line number program of .debug_line to build the table that maps
#        instruction addresses to source locations.
#
#   - License : MIT - See LICENSE file.
#   - Project :  dwarfscope
#
#   Copyright (c) 2026 dwarfscope

__all__ = ['FileEntry', 'LineRow', 'LineProgramHeader', 'LineProgram', 'LineTable']

import logging
import posixpath
from dataclasses import dataclass

from sortedcontainers import SortedKeyList  # type: ignore

from dwarfscope.dwarf.byte_cursor import ByteCursor
from dwarfscope.dwarf.attribute import AttributeDecoder, UnitEncoding, ValueKind, ValueType
from dwarfscope.dwarf.constants import LineStandardOpcode, LineExtendedOpcode, LineContentType, Form, format_enum_value
from dwarfscope.exceptions import MalformedLineProgramError
from dwarfscope.tools.typing import *

if TYPE_CHECKING:
    from dwarfscope.dwarf.dwarf_info import DwarfInfo


@dataclass(frozen=True)
class FileEntry:
    name: str
    directory_index: int
    modification_time: int = 0
    length: int = 0
    md5: Optional[bytes] = None


@dataclass(frozen=True)
class LineRow:
    address: int
    file_index: int
    line: int
    column: int
    is_statement: bool
    end_sequence: bool
    basic_block: bool = False
    prologue_end: bool = False
    epilogue_begin: bool = False
    isa: int = 0
    discriminator: int = 0
    op_index: int = 0


@dataclass(frozen=True)
class LineProgramHeader:
    offset: int
    unit_length: int
    offset_size: int
    version: int
    address_size: Optional[int]     # Only in DWARF 5
    segment_selector_size: int
    header_length: int
    minimum_instruction_length: int
    maximum_operations_per_instruction: int
    default_is_stmt: bool
    line_base: int
    line_range: int
    opcode_base: int
    standard_opcode_lengths: Tuple[int, ...]
    include_directories: Tuple[str, ...]
    file_names: Tuple[FileEntry, ...]
    program_offset: int     # First opcode
    end_offset: int         # End of this program in .debug_line


class _LineState:
    """The registers of the line number state machine"""
    __slots__ = ('address', 'op_index', 'file', 'line', 'column', 'is_stmt', 'basic_block',
                 'end_sequence', 'prologue_end', 'epilogue_begin', 'isa', 'discriminator')

    def __init__(self, default_is_stmt: bool) -> None:
        self.address = 0
        self.op_index = 0
        self.file = 1
        self.line = 1
        self.column = 0
        self.is_stmt = default_is_stmt
        self.basic_block = False
        self.end_sequence = False
        self.prologue_end = False
        self.epilogue_begin = False
        self.isa = 0
        self.discriminator = 0

    def make_row(self) -> LineRow:
        return LineRow(
            address=self.address,
            file_index=self.file,
            line=self.line,
            column=self.column,
            is_statement=self.is_stmt,
            end_sequence=self.end_sequence,
            basic_block=self.basic_block,
            prologue_end=self.prologue_end,
            epilogue_begin=self.epilogue_begin,
            isa=self.isa,
            discriminator=self.discriminator,
            op_index=self.op_index
        )


class LineProgram:
    """
    The line number program of one compilation unit. The header is decoded right away,
    the opcodes are run the first time the rows are requested.
    """

    header: LineProgramHeader
    comp_dir: Optional[str]
    logger: logging.Logger
    _cursor: ByteCursor
    _file_names: List[FileEntry]
    _rows: Optional[List[LineRow]]
    _line_table: Optional["LineTable"]

    def __init__(self, header: LineProgramHeader, cursor: ByteCursor, comp_dir: Optional[str] = None) -> None:
        self.header = header
        self.comp_dir = comp_dir
        self.logger = logging.getLogger(self.__class__.__name__)
        self._cursor = cursor
        self._file_names = list(header.file_names)
        self._rows = None
        self._line_table = None

    @classmethod
    def parse(cls,
              cursor: ByteCursor,
              dwarfinfo: Optional["DwarfInfo"] = None,
              comp_dir: Optional[str] = None
              ) -> "LineProgram":
        """Decode the header of the program at the cursor position. The cursor must be over .debug_line"""
        offset = cursor.tell()
        unit_length = cursor.read_u32()
        offset_size = 4
        if unit_length == 0xffffffff:
            unit_length = cursor.read_u64()
            offset_size = 8
        elif unit_length >= 0xfffffff0:
            raise MalformedLineProgramError(f"Reserved unit length 0x{unit_length:x} for line program at 0x{offset:x}")

        program = cursor.slice(unit_length)
        end_offset = program.end_offset
        version = program.read_u16()
        if version < 2 or version > 5:
            raise MalformedLineProgramError(f"Unsupported line program version {version} at 0x{offset:x}")

        address_size: Optional[int] = None
        segment_selector_size = 0
        if version >= 5:
            address_size = program.read_u8()
            segment_selector_size = program.read_u8()

        header_length = program.read_uint(offset_size)
        program_offset = program.tell() + header_length
        minimum_instruction_length = program.read_u8()
        maximum_operations_per_instruction = 1
        if version >= 4:
            maximum_operations_per_instruction = program.read_u8()
            if maximum_operations_per_instruction == 0:
                maximum_operations_per_instruction = 1
        default_is_stmt = program.read_u8() != 0
        line_base = program.read_s8()
        line_range = program.read_u8()
        opcode_base = program.read_u8()
        if line_range == 0:
            raise MalformedLineProgramError(f"Line program at 0x{offset:x} has a line range of 0")
        if opcode_base == 0:
            raise MalformedLineProgramError(f"Line program at 0x{offset:x} has an opcode base of 0")
        standard_opcode_lengths = tuple(program.read_u8() for _ in range(opcode_base - 1))

        include_directories: List[str]
        file_names: List[FileEntry]
        if version >= 5:
            encoding = UnitEncoding(version=version, address_size=address_size or 8, offset_size=offset_size, unit_offset=offset)
            decoder = AttributeDecoder(encoding, strict=True)
            include_directories = [entry.name for entry in cls._read_entry_table(program, decoder, dwarfinfo)]
            file_names = cls._read_entry_table(program, decoder, dwarfinfo)
        else:
            include_directories = []
            while True:
                directory = program.read_cstring()
                if len(directory) == 0:
                    break
                include_directories.append(directory.decode('utf8', errors='replace'))

            file_names = []
            while True:
                entry = cls._read_file_entry(program)
                if entry is None:
                    break
                file_names.append(entry)

        if program_offset > end_offset:
            raise MalformedLineProgramError(f"Header length of line program at 0x{offset:x} goes past the end of the program")
        program.seek(program_offset)

        header = LineProgramHeader(
            offset=offset,
            unit_length=unit_length,
            offset_size=offset_size,
            version=version,
            address_size=address_size,
            segment_selector_size=segment_selector_size,
            header_length=header_length,
            minimum_instruction_length=minimum_instruction_length,
            maximum_operations_per_instruction=maximum_operations_per_instruction,
            default_is_stmt=default_is_stmt,
            line_base=line_base,
            line_range=line_range,
            opcode_base=opcode_base,
            standard_opcode_lengths=standard_opcode_lengths,
            include_directories=tuple(include_directories),
            file_names=tuple(file_names),
            program_offset=program_offset,
            end_offset=end_offset
        )
        return cls(header, program, comp_dir)

    @classmethod
    def _read_file_entry(cls, cursor: ByteCursor) -> Optional[FileEntry]:
        """Read a DWARF 2-4 file entry. None on the empty name that ends the list"""
        name = cursor.read_cstring()
        if len(name) == 0:
            return None
        return FileEntry(
            name=name.decode('utf8', errors='replace'),
            directory_index=cursor.read_uleb128(),
            modification_time=cursor.read_uleb128(),
            length=cursor.read_uleb128()
        )

    @classmethod
    def _read_entry_table(cls, cursor: ByteCursor, decoder: AttributeDecoder, dwarfinfo: Optional["DwarfInfo"]) -> List[FileEntry]:
        """Read a DWARF 5 directory or file name table: a format description followed by the entries"""
        format_count = cursor.read_u8()
        entry_format: List[Tuple[int, int]] = []
        for _ in range(format_count):
            content_type = cursor.read_uleb128()
            form = cursor.read_uleb128()
            entry_format.append((content_type, form))

        entries: List[FileEntry] = []
        count = cursor.read_uleb128()
        for _ in range(count):
            name = ''
            directory_index = 0
            modification_time = 0
            length = 0
            md5: Optional[bytes] = None
            for content_type, form in entry_format:
                kind, value = decoder.read_form(form, cursor)
                if content_type == LineContentType.DW_LNCT_path:
                    name = cls._resolve_path(kind, value, form, dwarfinfo)
                elif content_type == LineContentType.DW_LNCT_directory_index:
                    directory_index = cls._get_int(value, cursor)
                elif content_type == LineContentType.DW_LNCT_timestamp:
                    modification_time = cls._get_int(value, cursor)
                elif content_type == LineContentType.DW_LNCT_size:
                    length = cls._get_int(value, cursor)
                elif content_type == LineContentType.DW_LNCT_MD5:
                    if isinstance(value, bytes):
                        md5 = value
                # Vendor content types are skipped. Their value has been read already.
            entries.append(FileEntry(name=name, directory_index=directory_index, modification_time=modification_time,
                                     length=length, md5=md5))
        return entries

    @classmethod
    def _get_int(cls, value: ValueType, cursor: ByteCursor) -> int:
        if isinstance(value, bytes):
            return int.from_bytes(value, 'little' if cursor.little_endian else 'big')
        return int(value)

    @classmethod
    def _resolve_path(cls, kind: ValueKind, value: ValueType, form: int, dwarfinfo: Optional["DwarfInfo"]) -> str:
        if kind == ValueKind.STRING and isinstance(value, bytes):
            return value.decode('utf8', errors='replace')
        if dwarfinfo is not None:
            if kind == ValueKind.STRING_REF:
                return dwarfinfo.resolve_string(int(value))
            if kind == ValueKind.LINE_STRING_REF:
                return dwarfinfo.resolve_line_string(int(value))
        raise MalformedLineProgramError(f"Cannot read a path encoded with form {format_enum_value(Form, form)}")

    @property
    def version(self) -> int:
        return self.header.version

    def get_rows(self) -> List[LineRow]:
        """The rows in the order the program emits them"""
        if self._rows is None:
            self._rows = self._run()
        return self._rows

    def get_sequences(self) -> List[List[LineRow]]:
        """Rows grouped by sequence. Every complete sequence ends with an end_sequence row"""
        sequences: List[List[LineRow]] = []
        current: List[LineRow] = []
        for row in self.get_rows():
            current.append(row)
            if row.end_sequence:
                sequences.append(current)
                current = []
        if len(current) > 0:
            sequences.append(current)
        return sequences

    def get_line_table(self) -> "LineTable":
        if self._line_table is None:
            self._line_table = LineTable(self.get_rows())
        return self._line_table

    def get_file_entries(self) -> List[FileEntry]:
        self.get_rows()     # DW_LNE_define_file can add entries
        return list(self._file_names)

    def get_file_entry(self, index: int) -> Optional[FileEntry]:
        files = self.get_file_entries()
        # DWARF 5 numbers files from 0, earlier versions from 1
        list_index = index if self.header.version >= 5 else index - 1
        if list_index < 0 or list_index >= len(files):
            return None
        return files[list_index]

    def get_directory(self, index: int) -> Optional[str]:
        directories = self.header.include_directories
        if self.header.version >= 5:
            if index < 0 or index >= len(directories):
                return None
            return directories[index]

        if index == 0:
            return self.comp_dir   # Index 0 is the compilation directory before DWARF 5
        if index - 1 >= len(directories):
            return None
        return directories[index - 1]

    def get_file_path(self, index: int) -> Optional[str]:
        """Full path of a file referred by the file register of a row"""
        entry = self.get_file_entry(index)
        if entry is None:
            return None
        path = entry.name
        if not posixpath.isabs(path):
            directory = self.get_directory(entry.directory_index)
            if directory is not None:
                path = posixpath.join(directory, path)
            # Directory 0 already is the compilation directory
            from_comp_dir = directory is not None and entry.directory_index == 0
            if not posixpath.isabs(path) and not from_comp_dir and self.comp_dir is not None:
                path = posixpath.join(self.comp_dir, path)
        return posixpath.normpath(path)

    def _advance(self, state: _LineState, operation_advance: int) -> None:
        header = self.header
        if header.maximum_operations_per_instruction == 1:
            state.address += header.minimum_instruction_length * operation_advance
        else:
            op_index = state.op_index + operation_advance
            state.address += header.minimum_instruction_length * (op_index // header.maximum_operations_per_instruction)
            state.op_index = op_index % header.maximum_operations_per_instruction

    def _emit(self, rows: List[LineRow], state: _LineState) -> None:
        rows.append(state.make_row())
        state.basic_block = False
        state.prologue_end = False
        state.epilogue_begin = False
        state.discriminator = 0

    def _run(self) -> List[LineRow]:
        header = self.header
        cursor = self._cursor.copy()
        cursor.seek(header.program_offset)
        rows: List[LineRow] = []
        state = _LineState(header.default_is_stmt)

        while not cursor.at_end():
            opcode = cursor.read_u8()
            if opcode >= header.opcode_base:
                adjusted_opcode = opcode - header.opcode_base
                self._advance(state, adjusted_opcode // header.line_range)
                state.line += header.line_base + (adjusted_opcode % header.line_range)
                self._emit(rows, state)

            elif opcode == 0:
                self._run_extended_opcode(cursor, rows, state)
                if state.end_sequence:
                    state = _LineState(header.default_is_stmt)

            elif opcode == LineStandardOpcode.DW_LNS_copy:
                self._emit(rows, state)

            elif opcode == LineStandardOpcode.DW_LNS_advance_pc:
                self._advance(state, cursor.read_uleb128())

            elif opcode == LineStandardOpcode.DW_LNS_advance_line:
                state.line += cursor.read_sleb128()

            elif opcode == LineStandardOpcode.DW_LNS_set_file:
                state.file = cursor.read_uleb128()

            elif opcode == LineStandardOpcode.DW_LNS_set_column:
                state.column = cursor.read_uleb128()

            elif opcode == LineStandardOpcode.DW_LNS_negate_stmt:
                state.is_stmt = not state.is_stmt

            elif opcode == LineStandardOpcode.DW_LNS_set_basic_block:
                state.basic_block = True

            elif opcode == LineStandardOpcode.DW_LNS_const_add_pc:
                self._advance(state, (255 - header.opcode_base) // header.line_range)

            elif opcode == LineStandardOpcode.DW_LNS_fixed_advance_pc:
                state.address += cursor.read_u16()
                state.op_index = 0

            elif opcode == LineStandardOpcode.DW_LNS_set_prologue_end:
                state.prologue_end = True

            elif opcode == LineStandardOpcode.DW_LNS_set_epilogue_begin:
                state.epilogue_begin = True

            elif opcode == LineStandardOpcode.DW_LNS_set_isa:
                state.isa = cursor.read_uleb128()

            else:
                # Opcode unknown to us, but the header tells how many operands it takes.
                for _ in range(header.standard_opcode_lengths[opcode - 1]):
                    cursor.read_uleb128()

        if len(rows) > 0 and not rows[-1].end_sequence:
            self.logger.debug(f"Line program at 0x{header.offset:x} ends without closing its last sequence")

        return rows

    def _run_extended_opcode(self, cursor: ByteCursor, rows: List[LineRow], state: _LineState) -> None:
        length = cursor.read_uleb128()
        if length == 0:
            return
        operation = cursor.slice(length)
        sub_opcode = operation.read_u8()

        if sub_opcode == LineExtendedOpcode.DW_LNE_end_sequence:
            state.end_sequence = True
            self._emit(rows, state)

        elif sub_opcode == LineExtendedOpcode.DW_LNE_set_address:
            size = operation.remaining()
            if size < 1 or size > 8:
                raise MalformedLineProgramError(f"DW_LNE_set_address with an address of {size} bytes")
            state.address = operation.read_uint(size)
            state.op_index = 0

        elif sub_opcode == LineExtendedOpcode.DW_LNE_define_file:
            entry = self._read_file_entry(operation)
            if entry is not None:
                self._file_names.append(entry)

        elif sub_opcode == LineExtendedOpcode.DW_LNE_set_discriminator:
            state.discriminator = operation.read_uleb128()

        else:
            self.logger.debug(f"Ignoring unknown extended opcode 0x{sub_opcode:x} at 0x{operation.start_offset:x}")


class LineTable:
    """
    The rows of a line program, sorted by address. The program emits its sequences in any order,
    so lookups cannot be done on the emitted rows.
    """

    _rows: SortedKeyList

    def __init__(self, rows: Iterable[LineRow]) -> None:
        # At equal address, the end of a sequence sorts before the start of the next one
        self._rows = SortedKeyList(rows, key=self._sort_key)

    @staticmethod
    def _sort_key(row: LineRow) -> Tuple[int, int]:
        return (row.address, 0 if row.end_sequence else 1)

    def lookup(self, address: int) -> Optional[LineRow]:
        """The row that covers an address. None if the address is not in any sequence"""
        index = self._rows.bisect_key_right((address, 1)) - 1
        if index < 0:
            return None
        row = cast(LineRow, self._rows[index])
        if row.end_sequence:
            return None
        return row

    def get_addresses_for_line(self, file_index: int, line: int) -> List[int]:
        """Addresses of the statements generated for a source line. Where a debugger puts a breakpoint"""
        addresses: List[int] = []
        for row in self._rows:
            if row.file_index == file_index and row.line == line and row.is_statement and not row.end_sequence:
                if row.address not in addresses:
                    addresses.append(row.address)
        return addresses

    def get_rows(self) -> List[LineRow]:
        return list(self._rows)

    def __iter__(self) -> Iterator[LineRow]:
        return iter(self._rows)

    def __len__(self) -> int:
        return len(self._rows)
