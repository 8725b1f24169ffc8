"""Coordinate primitives shared by readers and indexes."""
