""" Client configuration. Values are layered, lowest priority first: the
    built-in defaults, the ``client.json`` file in the configuration
    :func:`directory`, environment variables, and finally any explicit
    overrides (typically from the command line).
"""

import copy
import os

from . import json
from . import transport
from .protocol import message

PUSH_REQUIRE = 'require'
PUSH_OPTIONAL = 'optional'
push_policies = (PUSH_REQUIRE, PUSH_OPTIONAL)

filename = 'client.json'

defaults = dict()
defaults['url'] = 'http://localhost:8080'
defaults['key'] = 'devkey'
defaults['transport'] = 'ws'
defaults['target'] = 'ws://localhost:9999'
defaults['payload'] = {'op': 'sum', 'a': 2, 'b': 3}
defaults['count'] = 10
defaults['delay'] = 1.0
defaults['features'] = message.Features().to_dict()
defaults['push'] = 'ws'
defaults['push_path'] = '/v1/messages'
defaults['push_address'] = None
defaults['push_send_address'] = None
defaults['push_policy'] = PUSH_REQUIRE
defaults['payload_policy'] = message.REJECT
defaults['timeout'] = None

environment = dict()
environment['GIBBERLINK_URL'] = 'url'
environment['GIBBERLINK_KEY'] = 'key'
environment['GIBBERLINK_PUSH'] = 'push'
environment['GIBBERLINK_PUSH_ADDRESS'] = 'push_address'
environment['GIBBERLINK_PUSH_SEND_ADDRESS'] = 'push_send_address'


class Configuration:
    """ A convenience class to represent client configuration data. Every
        setting is available as an attribute (``config.url``), and the
        whole thing can be treated like a read-only dictionary.

        An instance is an explicit context object: nothing in this package
        reads configuration from anywhere else, and two controllers with
        two different :class:`Configuration` instances share nothing.
    """

    def __init__(self, **overrides):

        self._values = copy.deepcopy(defaults)
        self.update(overrides)


    def __contains__(self, key):
        return key in self._values


    def __getattr__(self, key):

        # Only invoked for attributes not found the normal way.

        try:
            return self.__dict__['_values'][key]
        except KeyError:
            raise AttributeError(key)


    def __getitem__(self, key):
        return self._values[key]


    def __iter__(self):
        return iter(self._values)


    def __repr__(self):
        return 'Configuration(' + repr(self._values) + ')'


    def requested_features(self):
        """ Return the requested feature set as a :class:`message.Features`.
        """

        return message.Features.from_dict(self._values['features'])


    def update(self, values):
        """ Apply the provided dictionary of *values*. Keys with a value of
            None are ignored. Every key and value is validated before
            anything is changed.
        """

        pending = dict()

        for key, value in values.items():
            if key not in defaults:
                raise ValueError('unknown configuration key: ' + repr(key))

            if value is None:
                continue

            pending[key] = validate(key, value)

        self._values.update(pending)


# end of class Configuration



def validate(key, value):
    """ Check and normalize a single configuration *value*; invalid values
        raise ValueError.
    """

    if key == 'transport':
        return message.TransportKind(value).value

    if key == 'push':
        if value not in transport.backends:
            raise ValueError('invalid push backend: ' + repr(value))
        return value

    if key == 'push_policy':
        if value not in push_policies:
            raise ValueError('invalid push policy: ' + repr(value))
        return value

    if key == 'payload_policy':
        if value not in message.payload_policies:
            raise ValueError('invalid payload policy: ' + repr(value))
        return value

    if key == 'count':
        value = int(value)
        if value < 0:
            raise ValueError('count must be zero or more')
        return value

    if key == 'delay':
        value = float(value)
        if value < 0:
            raise ValueError('delay must be zero or more')
        return value

    if key == 'timeout':
        return float(value)

    if key == 'features':
        merged = dict(defaults['features'])
        merged.update(value)
        return message.Features.from_dict(merged).to_dict()

    if key == 'payload':
        return value

    return str(value)



def directory(default=None):
    """ Return the directory location where the configuration file is
        loaded from. This defaults to ``$HOME/.gibberlink``, but can be
        overridden by calling this method with an absolute path, or by
        setting the ``GIBBERLINK_HOME`` environment variable. Note that
        changes to the environment variable will be ignored unless it is
        set prior to the first invocation of this method.
    """

    if default is not None:
        default = str(default)
        default = os.path.expandvars(default)

        if os.path.isabs(default):
            pass
        else:
            raise ValueError('the default directory must be an absolute path')

        os.environ['GIBBERLINK_HOME'] = default
        directory.found = default

    found = directory.found

    if found is not None:
        return found

    try:
        found = os.environ['GIBBERLINK_HOME']
    except KeyError:
        pass
    else:
        directory.found = found
        return found

    try:
        home = os.environ['HOME']
    except KeyError:
        raise RuntimeError('GIBBERLINK_HOME and HOME environment variables not set, cannot determine configuration directory')

    found = os.path.join(home, '.gibberlink')

    directory.found = found
    return found

directory.found = None



def load(**overrides):
    """ Build a :class:`Configuration` from every layer. A missing
        configuration file is not an error; an unreadable or malformed one is.
    """

    configuration = Configuration()

    path = os.path.join(directory(), filename)

    if os.path.exists(path):
        with open(path, 'rb') as handle:
            contents = handle.read()

        values = json.loads(contents)

        if not isinstance(values, dict):
            raise ValueError('configuration file must contain a JSON object: ' + path)

        configuration.update(values)

    from_environment = dict()
    for variable, key in environment.items():
        try:
            from_environment[key] = os.environ[variable]
        except KeyError:
            continue

    configuration.update(from_environment)
    configuration.update(overrides)

    check(configuration)
    return configuration



def check(configuration):
    """ Validate settings that depend on each other, once every layer has
        been applied; raises ValueError.
    """

    if configuration.push == 'zmq' and configuration.push_address is None:
        raise ValueError('the zmq push backend requires a push address')


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
