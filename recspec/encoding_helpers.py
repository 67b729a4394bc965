# Copyright (c) 2024 NASK. All rights reserved.

"""
String-related helpers used to produce safe (ASCII-only) messages.
"""


def ascii_str(obj):

    r"""
    Safely convert the given object to an ASCII-only :class:`str`.

    This function does its best to obtain a string representation
    (:class:`bytes`-like objects are decoded as UTF-8, with undecodable
    bytes escaped; :func:`repr` is the last-resort fallback) and then
    escapes any non-ASCII characters -- *not raising* any
    encoding/decoding exceptions.

    >>> ascii_str('')
    ''
    >>> ascii_str('Ala ma kota\nA kot?\n2=2 ')   # pure ASCII str => unchanged
    'Ala ma kota\nA kot?\n2=2 '
    >>> ascii_str(b'Ala ma kota')
    'Ala ma kota'

    >>> ascii_str('Ech, ale błąd!')       # non-pure-ASCII-str => escaped
    'Ech, ale b\\u0142\\u0105d!'
    >>> ascii_str(b'Ech, ale b\xc5\x82\xc4\x85d!')   # UTF-8 bytes => decoded + escaped
    'Ech, ale b\\u0142\\u0105d!'
    >>> ascii_str(b'\xee\xdd \tja')                 # non-UTF-8 bytes
    '\\udcee\\udcdd \tja'

    >>> ascii_str(ValueError('Ech, ale błąd!'))
    'Ech, ale b\\u0142\\u0105d!'
    >>> ascii_str(42)
    '42'

    >>> class Nasty(object):
    ...     def __str__(self): raise ValueError
    ...     def __repr__(self): return 'really nasŧy!!!'
    ...
    >>> ascii_str(Nasty())
    'really nas\\u0167y!!!'
    """

    if isinstance(obj, (bytes, bytearray, memoryview)):
        s = bytes(obj).decode('utf-8', 'surrogateescape')
    else:
        try:
            s = str(obj)
        except ValueError:
            s = repr(obj)
    return s.encode('ascii', 'backslashreplace').decode('ascii')


def limited_ascii_repr(obj, max_length=60):
    """
    Get an ASCII-only :func:`repr` of the given object, cut if too long.

    >>> limited_ascii_repr('zaż\xf3łć')
    "'za\\\\u017c\\\\xf3\\\\u0142\\\\u0107'"
    >>> limited_ascii_repr(list(range(100)), max_length=20)
    '[0, 1, 2, 3, 4, 5...'
    """
    r = ascii(obj)
    if len(r) > max_length:
        r = r[:max_length - 3] + '...'
    return r


def str_to_bool(s):
    """
    Return True or False, given one of the known strings (see examples below).

    >>> str_to_bool('1')
    True
    >>> str_to_bool('yes')
    True
    >>> str_to_bool('Yes')  # note: checks are case-insensitive
    True
    >>> str_to_bool('true')
    True
    >>> str_to_bool('on')
    True

    >>> str_to_bool('0')
    False
    >>> str_to_bool('nO')
    False
    >>> str_to_bool('false')
    False
    >>> str_to_bool('off')
    False

    Other string values cause ValueError:

    >>> str_to_bool('unknown')        # doctest: +IGNORE_EXCEPTION_DETAIL
    Traceback (most recent call last):
      ...
    ValueError: ...

    Non-str values cause TypeError:

    >>> str_to_bool(True)             # doctest: +IGNORE_EXCEPTION_DETAIL
    Traceback (most recent call last):
      ...
    TypeError: ...
    """
    if not isinstance(s, str):
        raise TypeError('{!a} is not a str'.format(s))
    try:
        return _STR_TO_BOOL_MAPPING[s.lower()]
    except KeyError:
        raise ValueError('{!a} is not a valid boolean flag'.format(s)) from None

_STR_TO_BOOL_MAPPING = {
    '1': True, 'y': True, 'yes': True, 't': True, 'true': True, 'on': True,
    '0': False, 'n': False, 'no': False, 'f': False, 'false': False, 'off': False,
}
