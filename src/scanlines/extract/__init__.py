"""Line extraction algorithms."""
