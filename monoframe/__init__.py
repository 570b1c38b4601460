"""Convert images into 1bpp framebuffers for small monochrome OLED/LCD controllers."""

__version__ = "0.1.0"
