# Copyright (c) 2024 NASK. All rights reserved.

import calendar
import datetime

import dateutil.parser

from recspec.regexes import (
    ISO_DATE_REGEX,
    ISO_TIME_REGEX,
    ISO_DATETIME_REGEX,
)


_EPOCH = datetime.datetime(1970, 1, 1)

#: Numbers of seconds in supported numeric timestamp units.
TIMESTAMP_UNITS = {
    'seconds': 1,
    'milliseconds': 1000,
}


def datetime_utc_normalize(dt):
    """
    Normalize a :class:`datetime.datetime` to a naive UTC one.

    Args:
        `dt`: A :class:`datetime.datetime` instance (naive or TZ-aware).

    Returns:
        An equivalent *naive* :class:`datetime.datetime` instance.

    Raises:
        :exc:`~exceptions.ValueError` if the result would be out of
        the range supported by :class:`datetime.datetime`.

    >>> naive_dt = datetime.datetime(2013, 6, 6, 12, 13, 57, 751219)
    >>> datetime_utc_normalize(naive_dt)
    datetime.datetime(2013, 6, 6, 12, 13, 57, 751219)

    >>> tzinfo = datetime.timezone(datetime.timedelta(hours=2))
    >>> tz_aware_dt = datetime.datetime(2013, 6, 6, 14, 13, 57, 751219,
    ...                                 tzinfo=tzinfo)
    >>> datetime_utc_normalize(tz_aware_dt)
    datetime.datetime(2013, 6, 6, 12, 13, 57, 751219)
    """
    if dt.utcoffset() is None:
        return dt.replace(tzinfo=None)
    try:
        return dt.astimezone(datetime.timezone.utc).replace(tzinfo=None)
    except OverflowError as exc:
        raise ValueError(*exc.args) from exc


def datetime_from_timestamp(timestamp, unit='seconds'):
    """
    Make a naive UTC :class:`datetime.datetime` from a Unix timestamp.

    Args:
        `timestamp`:
            A real number (negative values are allowed).

    Kwargs:
        `unit` (default: ``'seconds'``):
            One of the keys of :data:`TIMESTAMP_UNITS`.

    Raises:
        :exc:`~exceptions.ValueError` for NaN, infinities and values
        out of the :class:`datetime.datetime` range.

    >>> datetime_from_timestamp(0)
    datetime.datetime(1970, 1, 1, 0, 0)
    >>> datetime_from_timestamp(1370513637.751219)
    datetime.datetime(2013, 6, 6, 10, 13, 57, 751219)
    >>> datetime_from_timestamp(1370513637751, unit='milliseconds')
    datetime.datetime(2013, 6, 6, 10, 13, 57, 751000)
    >>> datetime_from_timestamp(-86400)
    datetime.datetime(1969, 12, 31, 0, 0)

    >>> datetime_from_timestamp(float('nan'))   # doctest: +IGNORE_EXCEPTION_DETAIL
    Traceback (most recent call last):
      ...
    ValueError: ...
    >>> datetime_from_timestamp(10 ** 20)       # doctest: +IGNORE_EXCEPTION_DETAIL
    Traceback (most recent call last):
      ...
    ValueError: ...
    """
    try:
        divisor = TIMESTAMP_UNITS[unit]
    except KeyError:
        raise ValueError('unsupported timestamp unit: {!a}'.format(unit)) from None
    if isinstance(timestamp, int):
        seconds, remainder = divmod(timestamp, divisor)
        delta_args = dict(seconds=seconds,
                          microseconds=remainder * (1000000 // divisor))
    else:
        delta_args = dict(seconds=float(timestamp) / divisor)
    try:
        return _EPOCH + datetime.timedelta(**delta_args)
    except OverflowError as exc:
        raise ValueError('timestamp {!a} is out of range'.format(timestamp)) from exc


def parse_iso_date(s, prestrip=True):
    """
    Parse *ISO-8601*-formatted date.

    Args:
        `s`: *ISO-8601*-formatted date as a `str`.

    Kwargs:
        `prestrip` (default: :obj:`True`):
            Whether the :meth:`strip` method should be called on the
            input string before performing the actual processing.

    Returns:
        A :class:`datetime.date` instance.

    Raises:
        :exc:`~exceptions.ValueError` for invalid input.

    Intentional limitation: specified date must include unambiguous day
    specification (inputs such as ``'2013-05'`` or ``'2013'`` are not
    supported).

    >>> parse_iso_date('2013-06-12')
    datetime.date(2013, 6, 12)
    >>> parse_iso_date('99991231')
    datetime.date(9999, 12, 31)
    >>> parse_iso_date('2013-W24-3')
    datetime.date(2013, 6, 12)
    >>> parse_iso_date('2012-366')   # 2012 was a leap year
    datetime.date(2012, 12, 31)

    >>> parse_iso_date('2013-02-31')     # doctest: +IGNORE_EXCEPTION_DETAIL
    Traceback (most recent call last):
      ...
    ValueError: ...
    >>> parse_iso_date('2013-366')       # doctest: +IGNORE_EXCEPTION_DETAIL
    Traceback (most recent call last):
      ...
    ValueError: ...
    >>> parse_iso_date('01-01-2013')     # doctest: +IGNORE_EXCEPTION_DETAIL
    Traceback (most recent call last):
      ...
    ValueError: ...
    """
    if prestrip:
        s = s.strip()
    match = ISO_DATE_REGEX.match(s)
    if match:
        return _make_date_from_match(match)
    raise ValueError('could not parse {!a} as ISO date'.format(s))


def parse_iso_time(s, prestrip=True):
    """
    Parse *ISO-8601*-formatted time.

    Returns:
        A :class:`datetime.time` instance (a TZ-aware one if the input
        does include time zone information, otherwise a naive one).

    Raises:
        :exc:`~exceptions.ValueError` for invalid input.

    Specified time must include at least hour and minute.  The "leap
    second" (60) is accepted but converted to 59 seconds + 999999
    microseconds.

    >>> parse_iso_time('10:02')
    datetime.time(10, 2)
    >>> parse_iso_time('23:59:60.5Z')
    datetime.time(23, 59, 59, 999999, tzinfo=datetime.timezone.utc)
    """
    if prestrip:
        s = s.strip()
    match = ISO_TIME_REGEX.match(s)
    if match:
        return _make_time_from_match(match)
    raise ValueError('could not parse {!a} as ISO time'.format(s))


def parse_iso_datetime(s, prestrip=True):
    """
    Parse *ISO-8601*-formatted combined date and time.

    Returns:
        A :class:`datetime.datetime` instance (a TZ-aware one if the
        input does include time zone information, otherwise a naive
        one).

    Raises:
        :exc:`~exceptions.ValueError` for invalid input.

    For notes about some limitations -- see :func:`parse_iso_date` and
    :func:`parse_iso_time`.

    >>> parse_iso_datetime('2013-06-13T24:00')
    datetime.datetime(2013, 6, 14, 0, 0)
    """
    if prestrip:
        s = s.strip()
    match = ISO_DATETIME_REGEX.match(s)
    if match:
        d = _make_date_from_match(match)
        t = _make_time_from_match(match)
        if match.group('hour') == '24':
            d += datetime.timedelta(1)
        return datetime.datetime.combine(d, t)
    raise ValueError('could not parse {!a} as ISO combined date + time'
                     .format(s))


def parse_iso_datetime_to_utc(s, prestrip=True):
    """
    Parse *ISO-8601*-formatted combined date and time, and normalize it to UTC.

    Returns:
        A :class:`datetime.datetime` instance (a naive one, normalized
        to UTC).

    >>> parse_iso_datetime_to_utc('2013-06-13T10:02Z')
    datetime.datetime(2013, 6, 13, 10, 2)
    >>> parse_iso_datetime_to_utc('2013-06-13 10:02+02:00')
    datetime.datetime(2013, 6, 13, 8, 2)
    >>> parse_iso_datetime_to_utc('2013-06-13T22:02:04.1234-07:00')
    datetime.datetime(2013, 6, 14, 5, 2, 4, 123400)
    >>> parse_iso_datetime_to_utc('  2013-06-13T10:02:04.123456789Z  \t')
    datetime.datetime(2013, 6, 13, 10, 2, 4, 123456)
    """
    return datetime_utc_normalize(parse_iso_datetime(s, prestrip=prestrip))


def parse_lenient_datetime_to_utc(s):
    """
    Parse a date/time string in any format recognized by *dateutil*.

    Any missing date/time components are taken from 1970-01-01T00:00
    (not from the current date).

    Returns:
        A naive :class:`datetime.datetime`, normalized to UTC.

    Raises:
        :exc:`~exceptions.ValueError` for unparseable input.

    >>> parse_lenient_datetime_to_utc('Thu, 13 Jun 2013 10:02:04 +0200')
    datetime.datetime(2013, 6, 13, 8, 2, 4)
    >>> parse_lenient_datetime_to_utc('June 13, 2013')
    datetime.datetime(2013, 6, 13, 0, 0)
    >>> parse_lenient_datetime_to_utc('not a date')  # doctest: +IGNORE_EXCEPTION_DETAIL
    Traceback (most recent call last):
      ...
    ValueError: ...
    """
    try:
        dt = dateutil.parser.parse(s, default=_EPOCH)
    except (ValueError, OverflowError) as exc:
        raise ValueError('could not parse {!a} as date/time: {}'.format(s, exc)) from exc
    return datetime_utc_normalize(dt)


def _make_date_from_match(match):
    g = match.groupdict()
    if g['month']:
        return datetime.date(int(g['year']),
                             int(g['month']),
                             int(g['day']))
    elif g['isoweek']:
        return date_by_isoweekday(int(g['year']),
                                  int(g['isoweek']),
                                  int(g['isoweekday']))
    else:
        year = int(g['year'])
        ordinalday = int(g['ordinalday'])
        if not 1 <= ordinalday <= 366:
            raise ValueError('ordinal day number {!a} is out of '
                             'range 001..366'.format(ordinalday))
        if ordinalday == 366 and not calendar.isleap(year):
            raise ValueError('ordinal day number {!a} is out of range '
                             'for year {!a} (which is not a leap year)'
                             .format(ordinalday, year))
        return date_by_ordinalday(year, ordinalday)


def _make_time_from_match(match):
    g = match.groupdict()
    hour = int(g['hour'])
    if hour == 24:
        hour = 0
    minute = int(g['minute'])
    if g['secondfraction']:
        fract_str = g['secondfraction']
        microsecond = (int(fract_str) * 1000000) // (10 ** len(fract_str))
        microsecond = min(microsecond, 999999)
    else:
        microsecond = 0
    if g['second']:
        second = int(g['second'])
        if second == 60:  # ISO "leap second" (not supported by datetime)
            second = 59
            microsecond = 999999
    else:
        second = 0
    if g['utc']:
        tzinfo = datetime.timezone.utc
    elif g['tzhour']:
        utc_offset = int(g['tzhour']) * 60
        if g['tzminute']:
            tzminute = int(g['tzminute'])
            if tzminute > 59:
                raise ValueError('minute part {!a} in time zone designator '
                                 'is out of range 00..59'.format(tzminute))
            if g['tzhour'].startswith('-'):
                utc_offset -= tzminute
            else:
                utc_offset += tzminute
        tzinfo = datetime.timezone(datetime.timedelta(minutes=utc_offset))
    else:
        tzinfo = None
    return datetime.time(hour, minute, second, microsecond, tzinfo)


def date_by_ordinalday(year, ordinalday):
    """
    >>> date_by_ordinalday(2013, 32)
    datetime.date(2013, 2, 1)
    """
    try:
        return datetime.date(year, 1, 1) + datetime.timedelta(ordinalday - 1)
    except OverflowError as exc:
        raise ValueError(*exc.args) from exc


def date_by_isoweekday(isoyear, isoweek, isoweekday):
    """
    Returns:
        An equivalent :class:`datetime.date` instance
        (see: http://en.wikipedia.org/wiki/ISO_week_date).

    >>> date_by_isoweekday(2013, 1, 1)
    datetime.date(2012, 12, 31)
    >>> date_by_isoweekday(2011, 52, 7)
    datetime.date(2012, 1, 1)
    """
    if not 1 <= isoweek <= 53:
        raise ValueError('ISO week number {!a} is out of range 01..53'
                         .format(isoweek))
    if not 1 <= isoweekday <= 7:
        raise ValueError('ISO week day number {!a} is out of range 1..7'
                         .format(isoweekday))
    year_specific_correction = datetime.date(isoyear, 1, 4).isoweekday() + 3
    ordinalday = 7 * isoweek + isoweekday - year_specific_correction
    d = date_by_ordinalday(isoyear, ordinalday)
    if tuple(d.isocalendar()) != (isoyear, isoweek, isoweekday):
        raise ValueError('ISO week number {!a} is out of range for ISO-week-'
                         'numbering year {!a}'.format(isoweek, isoyear))
    return d
