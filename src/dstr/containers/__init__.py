"""String value and the two collections built on it."""

from .codec import decode_list, encode_list
from .dlist import DList, Link
from .dstring import DString
from .dvector import END, DVector, End

__all__ = [
    "DString",
    "DList",
    "Link",
    "DVector",
    "END",
    "End",
    "encode_list",
    "decode_list",
]
