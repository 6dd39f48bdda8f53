"""Protocol constants.

Keep these in one place to avoid stringly-typed request handling.
"""

API_KEY_HEADER = "x-api-key"

# Control channel endpoints
HEALTH = "/v1/health"
HANDSHAKE = "/v1/handshake"
ENCODE = "/v1/encode"
DECODE = "/v1/decode"
TRANSCRIPT = "/v1/transcript/"

# Default push channel path, relative to the gateway URL
MESSAGES = "/v1/messages"

# Health status
STATUS = "status"
STATUS_OK = "ok"

# Handshake fields
TRANSPORT = "transport"
TARGET = "target"
FEATURES = "features"
COMPRESSION = "compression"
FEC = "fec"
CRYPTO = "crypto"
MAX_MTU = "maxMtu"
SESSION_ID = "sessionId"
NEGOTIATED = "negotiated"
EXPIRES_AT = "expiresAt"

# Encode/decode fields
PAYLOAD = "payload"
REQUIRE_TRANSCRIPT = "requireTranscript"
MSG_ID = "msgId"
SIZE = "size"
BYTES_BASE64 = "bytesBase64"

# Transcript views
VIEW = "view"
VIEWS = ("full", "plain", "english")

# Push channel events
TYPE = "type"
SEND = "send"
TIMESTAMP = "timestamp"

# Gateway error bodies
ERROR = "error"
MESSAGE = "message"
