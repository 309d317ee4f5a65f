"""Services transverses (logs, monitoring système)"""
