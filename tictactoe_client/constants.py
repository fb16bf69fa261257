# =============================================================================
# Tic-Tac-Toe Client -- Protocol Constants
# =============================================================================

# -- Endpoint ------------------------------------------------------------------

DEFAULT_URL = "ws://localhost:8081/ws"
URL_ENV_VAR = "TICTACTOE_WS_URL"

# -- Timing (seconds) --------------------------------------------------------

CONNECTION_TIMEOUT = 10.0  # opening handshake only, no liveness timeout

# -- Messages ------------------------------------------------------------------

MAX_MESSAGE_SIZE = 65_536  # bytes
EVENT_QUEUE_SIZE = 100

# -- Frame types ---------------------------------------------------------------

FRAME_START_GAME = "START_GAME"
FRAME_MAKE_MOVE = "MAKE_MOVE"
FRAME_GAME_STATE = "GAME_STATE"
FRAME_GAME_MOVE = "GAME_MOVE"

# -- Board ---------------------------------------------------------------------

BOARD_SIZE = 9
BOARD_WIDTH = 3

# -- WebSocket close codes -----------------------------------------------------

WS_CLOSE_NORMAL = 1000
