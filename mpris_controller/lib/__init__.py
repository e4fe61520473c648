"""
Core of mpris-controller: everything between raw bus values and domain events.

  variant.py     tagged wire values
  decoder.py     attribute maps -> CapabilitySnapshot / TrackMetadata
  model.py       typed snapshot of one player
  events.py      domain events
  registry.py    name -> EndpointRecord
  reconciler.py  applies bus notifications to the registry
  event_loop.py  one event per cooperative step
"""
