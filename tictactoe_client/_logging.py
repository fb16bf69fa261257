# =============================================================================
# Tic-Tac-Toe Client -- Logging
# =============================================================================

import logging

logger = logging.getLogger("tictactoe_client")
logger.addHandler(logging.NullHandler())
