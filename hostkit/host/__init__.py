"""
hostkit.host
------------

Everything that touches the local machine directly: running commands
(with ``sudo`` when not root), reading ``/etc/os-release`` and looking up
local accounts.
"""
