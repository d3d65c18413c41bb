"""Video processing: orchestration of stages and the job runner."""
