"""HTTP and websocket API for the Swap Market messaging service."""
