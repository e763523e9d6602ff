from .message.protocol import MessageType, ServerBroadcast, UserList

__all__ = ['MessageType', 'ServerBroadcast', 'UserList']
