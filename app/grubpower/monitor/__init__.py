"""Boot-time USB power monitor.

Runs as the init process of the GrubPower boot image. See
:mod:`grubpower.monitor.loop` for the polling cycle.
"""
