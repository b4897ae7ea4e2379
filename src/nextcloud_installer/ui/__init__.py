"""Line-oriented terminal session, output rendering and the command-line router."""
