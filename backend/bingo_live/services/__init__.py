"""Game domain services: cards, draws, win checks and the session state machine.

Nothing in here knows about Flask or Socket.IO. HTTP routes and socket
handlers call into :class:`bingo_live.services.game.GameService`, which
persists through a repository and publishes through a broadcaster.
"""
