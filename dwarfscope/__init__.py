__all__ = [
    '__name__',
    '__version__',
    '__author__',
    '__credits__',
    '__license__',
    '__status__',
]


__name__ = 'dwarfscope'
__version__ = '0.1.0'
__author__ = 'dwarfscope'
__credits__ = ['dwarfscope contributors']
__license__ = 'MIT'
__status__ = 'Development'
