"""Longbox core package.

Modules:
- scanner: directory walk, change detection and orphan reclaim
- converter: CBR to CBZ normalisation through an external extractor
- thumbnails: cover extraction and resizing
- comicinfo: ComicInfo.xml sidecar parsing and writing
- library: per-user library tree assembly
- scheduler / monitor: periodic and filesystem-triggered scans
- config: INI parsing and config object
"""
