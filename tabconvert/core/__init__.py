"""
Core modules for tabconvert.

This package contains the conversion core: the visitor quota, the
format catalog and serializers, input parsing, and the conversion
wizard and hub.
"""
