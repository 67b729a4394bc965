# Copyright (c) 2024 NASK. All rights reserved.

import os.path as osp


TOPLEVEL_PACKAGES = ('recspec',)


# directories searched for configuration files
# (the latter takes precedence over the former)
ETC_DIR = '/etc/recspec'
USER_DIR = osp.expanduser('~/.recspec')
