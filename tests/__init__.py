"""
Utterance VAD Tests
===================

This package contains unit tests for the VAD engine components.

Test Structure:
- test_engine.py: End-to-end segmentation on scripted volume streams
- test_state_machine.py, test_validator.py, test_heuristics.py: Segmentation rules
- test_levels.py, test_sampler.py: Level measurement and thresholds
- test_recorder.py, test_sources.py, test_mic.py: Capture and recording
- test_config.py: Tests for configuration management
- test_cli.py, test_pipeline.py: Front end and thread wiring
- conftest.py: Shared test fixtures and setup

To run tests:
    pytest tests/

To run with coverage:
    pytest tests/ --cov=utterance_vad

To run specific test file:
    pytest tests/test_engine.py
"""
