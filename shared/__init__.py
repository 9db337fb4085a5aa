"""
Calendar event types shared by the calendar port, scheduler and renderer.
"""
