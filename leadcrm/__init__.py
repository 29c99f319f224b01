"""Lead CRM backend"""
