"""
Entry point for RelayChat application.
This module provides a command-line interface to start a server or a client
and to manage accounts.
"""

import argparse

from RelayChat.config import config


def parse(argv=None):
    # Initialize argument parser for command line interface
    parser = argparse.ArgumentParser(prog='RelayChat', description='RelayChat starter')
    subparsers = parser.add_subparsers(dest='command', required=True, help='Available commands')

    # Setup server command line arguments
    server_parser = subparsers.add_parser('server', help='Startup SERVER')
    server_parser.add_argument('--host', default=None,
                               help=f'SERVER listening address (default: {config.DEFAULT_HOST})')
    server_parser.add_argument('--port', type=int, default=None,
                               help=f'SERVER port (default: {config.DEFAULT_SERVER_PORT})')
    server_parser.add_argument('--db', default=None,
                               help=f'Credential database (default: {config.SQLITE_DB_FILE})')
    server_parser.add_argument('--auth-timeout', type=float, default=None,
                               help=f'Seconds to authenticate (default: {config.AUTH_TIMEOUT:g})')
    server_parser.add_argument('--log-level', default=None,
                               choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'],
                               help='Log level')

    # Setup account command line arguments
    adduser_parser = subparsers.add_parser('adduser', help='Register an account')
    adduser_parser.add_argument('login')
    adduser_parser.add_argument('password')
    adduser_parser.add_argument('nickname')
    adduser_parser.add_argument('--db', default=None,
                                help=f'Credential database (default: {config.SQLITE_DB_FILE})')

    # Setup client command line arguments
    client_parser = subparsers.add_parser('client', help='Startup CLIENT')
    client_parser.add_argument('--host', default=None,
                               help=f'Server address (default: {config.DEFAULT_HOST})')
    client_parser.add_argument('--port', type=int, default=None,
                               help=f'Server port (default: {config.DEFAULT_SERVER_PORT})')

    return parser.parse_args(argv)


def main(argv=None):
    args = parse(argv)

    # Launch the selected command
    if args.command == 'server':
        from RelayChat.start import server
        server.server(
            host=args.host,
            port=args.port,
            db_path=args.db,
            auth_timeout=args.auth_timeout,
            log_level=args.log_level
        )
    elif args.command == 'adduser':
        from RelayChat.start import server
        from RelayChat.core.server.exceptions import ProtocolError
        try:
            created = server.adduser(args.login, args.password, args.nickname, db_path=args.db)
        except ProtocolError as e:
            print(e)
            return 2
        return 0 if created else 1
    elif args.command == 'client':
        from RelayChat.start import client
        client.client(host=args.host, port=args.port)
    else:
        raise Exception('Unknown command')
    return 0


if __name__ == '__main__':
    raise SystemExit(main())
