"""shellrelay -- Relay scripts to local shell interpreters over TCP.

Each configured shell is bound to its own listener. A client uploads a
marker-delimited script, the service spools it to a temporary file, runs
it with the bound interpreter under a controlled environment and relays
the interpreter's output back over the same connection.
"""

__version__ = "0.1.0"
