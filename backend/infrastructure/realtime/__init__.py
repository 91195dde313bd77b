"""
Real-time delivery infrastructure.

Process-local registries of live subscribers and push endpoints,
rebuilt from client reconnects. They are not persisted.
"""
