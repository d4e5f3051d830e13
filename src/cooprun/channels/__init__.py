"""
Channel subsystem.

Components:
- channel.py: bounded/unbounded FIFO Channel (point-to-point, competing consumers)
- broadcast.py: BroadcastChannel delivering every value to every subscription
- builders.py: produce() and merge() helpers that tie channels to a TaskRunner
"""
