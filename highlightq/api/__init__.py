"""HTTP surface for HighlightQ: classification contract and message protocol"""
