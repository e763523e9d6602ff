"""
    ____       __            ________          __
   / __ \___  / /___ ___  __/ ____/ /_  ____ _/ /_
  / /_/ / _ \/ / __ `/ / / / /   / __ \/ __ `/ __/
 / _, _/  __/ / /_/ / /_/ / /___/ / / / /_/ / /_
/_/ |_|\___/_/\__,_/\__, /\____/_/ /_/\__,_/\__/
                   /____/

RelayChat Project - a line-oriented chat relay server.

Accepts WebSocket connections, authenticates them against a credential
store and relays chat lines to every connected participant.
License: Apache-2.0 License
"""

__version__ = "1.0.0"
