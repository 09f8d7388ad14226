"""
Caller identity.

Authentication happens upstream (ABHA login); by the time a request reaches
this service the identity layer has set the practitioner reference header.
Requests without it are rejected, there is no bypass.
"""
from typing import Optional

from fastapi import Header, HTTPException, status


def get_practitioner_ref(
    x_practitioner_ref: Optional[str] = Header(None, description="Authenticated practitioner reference")
) -> str:
    """
    Practitioner reference of the authenticated caller.
    
    Raises 401 if the identity layer did not supply one.
    """
    if not x_practitioner_ref or not x_practitioner_ref.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing caller identity (X-Practitioner-Ref header)",
        )
    return x_practitioner_ref.strip()
