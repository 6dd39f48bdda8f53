""" Python client for the Gibberlink gateway. This includes the session
    controller, which establishes a session and bridges the gateway's
    request/response control channel with its push channel, and the test-run
    orchestrator, which drives a paced sequence of sends and reports the
    delivery statistics.
"""

# Utility components.

from . import json
from . import log
from . import weakref

# Submodules used by multiple other components.

from . import errors
from . import protocol
from . import transport
from . import config
home = config.directory

# Primary public-facing interfaces.

from . import push
from . import stats
from .controller import SessionController
from .run import TestRun, RunState
from .push import PushChannel, PushState
from .stats import Correlator, RunStatistics

# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
