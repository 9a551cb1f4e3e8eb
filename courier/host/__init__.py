"""Seams to the host simulation (clock, sessions, people, positions, currency, recall).

The post office only talks to the host through these protocols, so it can be driven
by a game engine adapter or by plain fakes in tests.
"""
