# Copyright (c) 2024 NASK. All rights reserved.

"""
Regular expressions used to recognize *ISO-8601* date/time strings
(see :mod:`recspec.datetime_helpers`).

Ranges of particular values (e.g., that month is in 01..12) are
not checked here; that is done by the functions that use these
regexes, which gives better messages for incorrect input data.
"""


import re


ISO_DATE_REGEX = re.compile(r'''
    \A
    (?P<year>
        \d{4}
    )
    -?
    (?:
        (?P<month>
            \d{2}
        )
        -?
        (?P<day>
            \d{2}
        )
    |
        W
        (?P<isoweek>
            \d{2}
        )
        -?
        (?P<isoweekday>
            \d
        )
    |
        (?P<ordinalday>
            \d{3}
        )
    )
    \Z
''', re.ASCII | re.VERBOSE)


ISO_TIME_REGEX = re.compile(r'''
    \A
    (?P<hour>
        \d{2}
    )
    :?
    (?P<minute>
        \d{2}
    )
    (?:
        :?
        (?P<second>
            \d{2}
        )
        (?:
            [.,]
            (?P<secondfraction>
                \d+
            )
        )?
    )?
    (?:
        (?P<utc>
            Z
        )
    |
        (?P<tzhour>
            [+-]
            \d{2}
        )
        (?:
            :?
            (?P<tzminute>
                \d{2}
            )
        )?
    )?
    \Z
''', re.ASCII | re.VERBOSE)


#: Combined date + time; the separator may be `T` or whitespace.
ISO_DATETIME_REGEX = re.compile(
    r'{date}[T\s]{time}'.format(date=ISO_DATE_REGEX.pattern.rstrip('Z\\ \r\n'),
                                time=ISO_TIME_REGEX.pattern.lstrip('A\\ \r\n')),
    re.ASCII | re.VERBOSE)
