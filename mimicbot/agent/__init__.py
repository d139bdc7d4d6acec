"""The turn pipeline: collect, schedule, assemble, generate, deliver."""
