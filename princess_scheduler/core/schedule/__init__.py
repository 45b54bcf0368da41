"""Stage date scheduling.

compute.py places every stage of a catalog on the calendar in one forward
pass; cascade.py moves a single stage afterwards and drags its dependents
along, the way the timeline views do when a bar is dragged.
"""
