''' Wrapper module to select the most performant available library to handle
    the equivalent of :func:`json.loads` and :func:`json.dumps` for payloads
    exchanged with the gateway.
'''

# The business about conditionally importing the libraries is intended to
# avoid importing less efficient libraries if they are not available. orjson
# is a declared dependency; msgspec is used if someone installed it.

msgspec = None
orjson = None
json = None

try:
    import msgspec
except ImportError:
    pass

if msgspec is None:
    try:
        import orjson
    except ImportError:
        pass

if msgspec is None and orjson is None:
    import json


# The msgspec 'encode' operation returns bytes, as does orjson.dumps. To
# maintain alignment all 'dumps' methods need to do so as well. Decoding
# errors are always raised as ValueError, regardless of the backend.

def json_dumps(*args, **kwargs):
    return json.dumps(*args, **kwargs).encode()


if msgspec is not None:
    encoder = msgspec.json.Encoder()
    decoder = msgspec.json.Decoder()
    dumps = encoder.encode

    def loads(data):
        try:
            return decoder.decode(data)
        except msgspec.DecodeError as e:
            raise ValueError(str(e)) from e

elif orjson is not None:
    dumps = orjson.dumps
    loads = orjson.loads
else:
    dumps = json_dumps
    loads = json.loads


def dumps_text(value):
    ''' Same as :func:`dumps`, but return a str; text frames on the push
        channel are expected to be str.
    '''

    return dumps(value).decode()


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
