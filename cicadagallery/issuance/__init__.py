"""
Issuance side of CicadaGallery licensing: signing, the reference
issue-license service and the key generator tool.
"""
