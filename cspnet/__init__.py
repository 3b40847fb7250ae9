"""CubeSat Space Protocol link layers: KISS, I2C, loopback, tunnel, UDP, ZeroMQ hub and serial."""

__version__ = "0.1.0"

__all__ = [
    "errors",
    "packet",
    "kiss",
    "i2c",
    "loopback",
    "tun",
    "udp",
    "zmqhub",
    "usart",
]