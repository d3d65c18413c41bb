"""Application modules.

- video: Video records and processing state
- job: Persisted job queue with retry and dead letter handling
- transcoding: Encoding, adaptive streaming and thumbnails
- protection: DRM provider contracts
- subtitles: Speech-to-text provider contracts and WebVTT output
- notification: Email and Slack failure alerts
- processing: Pipeline orchestration and the job runner
"""
