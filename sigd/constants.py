# Signaling protocol constants (message type tags and field names)

# Envelope fields
F_TYPE = "type"
F_ROOM_ID = "roomId"
F_USER_ID = "userId"
F_TO = "to"
F_FROM = "from"

# Inbound message types
T_JOIN = "join"
T_OFFER = "offer"
T_ANSWER = "answer"
T_CANDIDATE = "candidate"

# Signaling types are forwarded to a single peer, never interpreted.
SIGNAL_TYPES = frozenset((T_OFFER, T_ANSWER, T_CANDIDATE))

# Outbound message types
T_YOUR_ID = "your-id"
T_USER_JOINED = "user-joined"
T_USER_LEFT = "user-left"

# Wire formats (per connection)
WIRE_JSON = "json"
WIRE_CBOR = "cbor"

DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 8080
IDENTITY_BYTES = 8
