"""MBG Watch - Services"""
