'''
Copyright 2025 Advanced Micro Devices, Inc.
All rights reserved. This notice is intended as a precaution against inadvertent publication and does not imply publication or any waiver of confidentiality.
The year included in the foregoing notice is the year of creation of the work.
All code contained here is Property of Advanced Micro Devices, Inc.
'''

import os
import re
import json
import socket


def server_args_to_flags(server_args):
    """
    Convert a server_args mapping from the config file into a CLI flag string.

    Parameters:
      server_args (dict): Mapping of flag name -> value.

    Behavior:
      - bool True emits a bare '--key', bool False emits nothing.
      - dict values emit '--key' followed by the single-quoted JSON encoding.
      - Everything else emits '--key' followed by str(value).
      - Key order of the mapping is preserved.

    Returns:
      str: Space separated flags, empty string if there are none.
    """
    flags = []
    for key, value in (server_args or {}).items():
        if isinstance(value, bool):
            if value:
                flags.append(f'--{key}')
        elif isinstance(value, dict):
            flags.append(f'--{key}')
            flags.append("'" + json.dumps(value) + "'")
        else:
            flags.append(f'--{key}')
            flags.append(str(value))
    return ' '.join(flags)


def image_slug(image):
    """Sanitise a docker image reference for use in a directory name."""
    return re.sub(r'[/:]', '_', image)


def short_hostname():
    host = os.environ.get('HOSTNAME') or socket.gethostname()
    return host.split('.')[0]


def expand_home(path):
    """Expand a leading '~' or a literal '$HOME' in a configured path."""
    path = str(path).replace('$HOME', os.path.expanduser('~'))
    return os.path.expanduser(path)
