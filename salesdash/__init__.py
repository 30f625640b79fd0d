"""
salesdash - progressive sales/clients dashboard backend
"""
