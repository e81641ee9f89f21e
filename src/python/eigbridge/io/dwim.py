###########################################################################
#  This file is part of eigbridge, and is licensed under EITHER the MIT
#  license or the Apache 2.0 license, at your option.
#
#      http://www.apache.org/licenses/LICENSE-2.0
#      http://opensource.org/licenses/MIT
###########################################################################

from pathlib import Path
from functools import partial
import io

__doc__ = """
Reading and writing of self-describing files, dispatched on the file
extension.  Compression is handled transparently through outer extensions
like ``.gz`` and ``.xz``, so ``matrix.json.xz`` is read as xz-compressed
JSON.

Format-specific modules (``eigbridge.io.csr``, ``eigbridge.io.eigensols``)
supply the conversion between their objects and plain dicts, plus handlers
for any binary extensions of their own (e.g. ``.npz``).
"""

def not_supported(*_args, path, **_kw):
    """ Default handler for formats a caller did not provide. """
    raise ValueError(f"{repr(path)}: Unsupported file extension")

def from_path(path):
    """
    Read a plain value (dict, list, ...) from ``.json`` or ``.yaml``,
    possibly compressed.  Used for configuration files.
    """
    return from_path_impl(path, from_dict=lambda x, path: x)

def to_path(path, obj):
    """ Counterpart of ``from_path``. """
    return to_path_impl(path, obj, to_dict=lambda x, path: x)

def from_path_impl(
        path,
        file=None,
        fullpath=None,
        from_dict=not_supported,
        from_ext=None,
):
    """
    Read ``path``, decompressing and deserializing according to its
    extensions.

    :param path: filepath, possibly with outer extensions already stripped.
    :param file: a binary file object to read instead of opening ``path``.
    Only needed when recursing through compression layers or reading stdin.
    :param fullpath: the original filename, for error messages.
    :param from_dict: called as ``from_dict(value, path=fullpath)`` on the
    deserialized value of ``.json`` and ``.yaml`` files.
    :param from_ext: dict mapping extra extensions (with leading dot) to
    functions called as ``function(file, path=fullpath)``.
    """
    from_ext = from_ext or {}

    if isinstance(path, Path):
        path = str(path)

    if fullpath is None:
        fullpath = path

    recurse = partial(from_path_impl, fullpath=fullpath, from_dict=from_dict, from_ext=from_ext)

    if file is None:
        with open(path, 'rb') as file:
            return recurse(path, file)

    if _endswith_nocase(path, '.json'):
        import json
        return from_dict(json.load(wrap_text(file)), path=fullpath)

    elif _endswith_nocase(path, '.yaml') or _endswith_nocase(path, '.yml'):
        from . import _yaml_shim as yaml
        return from_dict(yaml.load(wrap_text(file)), path=fullpath)

    elif _endswith_nocase(path, '.gz'):
        import gzip
        return recurse(path[:-len('.gz')], gzip.GzipFile(fileobj=file))

    elif _endswith_nocase(path, '.xz'):
        import lzma
        return recurse(path[:-len('.xz')], lzma.LZMAFile(file))

    for ext, function in from_ext.items():
        if _endswith_nocase(path, ext):
            return function(file, path=fullpath)

    raise ValueError(f'unknown extension in {repr(fullpath)}')

def to_path_impl(
        path,
        obj,
        file=None,
        fullpath=None,
        to_dict=not_supported,
        to_ext=None,
):
    """
    Write ``obj`` to ``path``, serializing and compressing according to its
    extensions.  Parameters mirror ``from_path_impl``; ``to_dict`` is called
    as ``to_dict(obj, path=fullpath)`` and must return plain python data, and
    the ``to_ext`` functions are called as ``function(file, obj, path=fullpath)``.
    """
    to_ext = to_ext or {}

    if isinstance(path, Path):
        path = str(path)

    if fullpath is None:
        fullpath = path

    recurse = partial(to_path_impl, fullpath=fullpath, to_dict=to_dict, to_ext=to_ext)

    if file is None:
        with open(path, 'wb') as file:
            recurse(path, obj, file)
            return

    if _endswith_nocase(path, '.json'):
        import json
        f = wrap_text(file)
        json.dump(to_dict(obj, path=fullpath), f)
        print(file=f) # trailing newline
        _finish_text(f, file)

    elif _endswith_nocase(path, '.yaml') or _endswith_nocase(path, '.yml'):
        from . import _yaml_shim as yaml
        f = wrap_text(file)
        yaml.dump(to_dict(obj, path=fullpath), f)
        _finish_text(f, file)

    elif _endswith_nocase(path, '.gz'):
        import gzip
        with gzip.GzipFile(fileobj=file, mode='wb') as inner:
            recurse(path[:-len('.gz')], obj, inner)

    elif _endswith_nocase(path, '.xz'):
        import lzma
        with lzma.LZMAFile(file, mode='wb') as inner:
            recurse(path[:-len('.xz')], obj, inner)

    else:
        for ext, function in to_ext.items():
            if _endswith_nocase(path, ext):
                function(file, obj, path=fullpath)
                return

        not_supported(path=fullpath)

def _endswith_nocase(s, suffix):
    return s[len(s) - len(suffix):].upper() == suffix.upper()

def wrap_text(f):
    if hasattr(f, 'encoding'):
        return f
    else:
        return io.TextIOWrapper(f, encoding='utf-8')

def _finish_text(f, file):
    f.flush()
    # don't let the wrapper close a file that belongs to someone else
    if f is not file:
        f.detach()
