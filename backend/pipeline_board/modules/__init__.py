"""
Board engine modules.

Routers call `board.board_service` rather than reaching into stores or the
grouping functions directly.
"""
