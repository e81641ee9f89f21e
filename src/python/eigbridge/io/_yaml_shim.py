###########################################################################
#  This file is part of eigbridge, and is licensed under EITHER the MIT
#  license or the Apache 2.0 license, at your option.
#
#      http://www.apache.org/licenses/LICENSE-2.0
#      http://opensource.org/licenses/MIT
###########################################################################

__all__ = [
    'load',
    'dump',
]

import functools

import yaml

try:
    from yaml import CSafeLoader as Loader, CSafeDumper as Dumper
except ImportError:
    # PyYAML built without libyaml
    from yaml import SafeLoader as Loader, SafeDumper as Dumper

load = functools.partial(yaml.load, Loader=Loader)
dump = functools.partial(yaml.dump, Dumper=Dumper)
