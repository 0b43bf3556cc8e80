"""HTTP surface for relayllm"""
