""" Command-line entry point: ``gibberlink test``, ``gibberlink decode``,
    and ``gibberlink transcript``. Fatal failures exit with status 1.
"""

import argparse
import json as pretty  # indented output only
import logging
import sys

from . import config
from . import errors
from . import json
from . import log
from . import stats
from .controller import SessionController
from .protocol import fields
from .run import TestRun

logger = logging.getLogger(__name__)


def arguments(argv=None):

    parser = argparse.ArgumentParser(prog='gibberlink', description='Gibberlink gateway client')
    parser.add_argument('-v', '--verbose', action='store_true', help='Log debug messages')
    parser.add_argument('--log-file', default=None, help='Also write log messages to this file')

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument('-u', '--url', default=None, help='Gateway URL')
    common.add_argument('-k', '--key', default=None, help='API key')

    commands = parser.add_subparsers(dest='command', required=True)

    test = commands.add_parser('test', parents=[common], help='Run a test with multiple messages')
    test.add_argument('-t', '--transport', default=None, choices=('ws', 'udp', 'audio'), help='Transport type')
    test.add_argument('-r', '--target', default=None, help='Target address')
    test.add_argument('-p', '--payload', default=None, help='Message payload (JSON)')
    test.add_argument('-c', '--count', default=None, type=int, help='Number of messages')
    test.add_argument('-d', '--delay', default=None, type=int, help='Delay between messages (ms)')
    test.add_argument('--push', default=None, choices=('ws', 'zmq'), help='Push channel backend')
    test.add_argument('--push-address', default=None, help='Push channel address (zmq only)')
    test.add_argument('--push-policy', default=None, choices=config.push_policies,
                      help='Whether the handshake fails without a push channel')
    test.add_argument('--payload-policy', default=None, choices=('reject', 'passthrough'),
                      help='What to do with payloads that are not JSON objects')

    decode = commands.add_parser('decode', parents=[common], help='Decode a base64 message')
    decode.add_argument('-b', '--bytes', required=True, help='Base64 encoded bytes')

    transcript = commands.add_parser('transcript', parents=[common], help='Get message transcript')
    transcript.add_argument('-m', '--msg-id', required=True, help='Message ID')
    transcript.add_argument('--view', default=None, choices=fields.VIEWS, help='Transcript view')

    return parser.parse_args(argv)



def configure(parsed):
    """ Translate parsed command-line arguments into a
        :class:`config.Configuration`.
    """

    overrides = dict()
    overrides['url'] = parsed.url
    overrides['key'] = parsed.key

    if parsed.command == 'test':
        overrides['transport'] = parsed.transport
        overrides['target'] = parsed.target
        overrides['count'] = parsed.count
        overrides['push'] = parsed.push
        overrides['push_address'] = parsed.push_address
        overrides['push_policy'] = parsed.push_policy
        overrides['payload_policy'] = parsed.payload_policy

        if parsed.payload is not None:
            try:
                overrides['payload'] = json.loads(parsed.payload)
            except ValueError as e:
                raise ValueError('payload is not valid JSON: ' + str(e))

        if parsed.delay is not None:
            overrides['delay'] = parsed.delay / 1000.0

    return config.load(**overrides)



def main(argv=None):

    parsed = arguments(argv)

    if parsed.verbose:
        level = logging.DEBUG
    else:
        level = logging.INFO

    log.setup(level, parsed.log_file)

    try:
        configuration = configure(parsed)
    except ValueError as e:
        logger.error("invalid configuration: %s", e)
        return 1

    controller = SessionController(configuration)

    try:
        if parsed.command == 'test':
            statistics = TestRun(controller).run()
            print('\n'.join(stats.render(statistics)))

        elif parsed.command == 'decode':
            decoded = controller.decode(parsed.bytes)
            print(pretty.dumps(decoded, indent=2))

        elif parsed.command == 'transcript':
            transcript = controller.fetch_transcript(parsed.msg_id, parsed.view)
            print(pretty.dumps(transcript, indent=2))

    except errors.GatewayError as e:
        logger.error("%s failed: %s", parsed.command, e)
        return 1

    finally:
        controller.close()
        controller.client.close()

    return 0



if __name__ == '__main__':
    sys.exit(main())


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
