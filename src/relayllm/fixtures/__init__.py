"""Provider payload fixtures and a stub transport for tests"""
