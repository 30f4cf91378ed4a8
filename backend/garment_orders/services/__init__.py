"""Domain services: order pipeline, quotation conversion, access, notifications and third parties."""
