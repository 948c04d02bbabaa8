"""VHI API client (compute, image, network and block storage services)."""

import json
from pathlib import Path
from typing import Any, AsyncIterator, Callable

import httpx

from .exceptions import (
    APIError,
    AuthenticationError,
    NetworkError,
    PermissionError,
    ResourceNotFoundError,
    TimeoutError,
    VHICliError,
)
from ..models.config import Token
from ..models.vm import ServerCreateRequest

COMPUTE_MICROVERSION = "2.67"
CHUNK_SIZE = 4 * 1024 * 1024
IMAGE_PATCH_TYPE = "application/openstack-images-v2.1-json-patch"

ProgressCallback = Callable[[int], None]


def _match_ref(items: list[dict[str, Any]], ref: str, resource: str) -> str:
    """Pick the ID of the item whose ID or name equals *ref*.

    Raises:
        ResourceNotFoundError: If nothing matches
        APIError: If the name is ambiguous
    """
    for item in items:
        if item.get("id") == ref:
            return item["id"]
    matches = [item["id"] for item in items if item.get("name") == ref]
    if not matches:
        raise ResourceNotFoundError(resource, ref)
    if len(matches) > 1:
        raise APIError(f"{resource} name '{ref}' is ambiguous ({len(matches)} matches)")
    return matches[0]


class VHIClient:
    """Async client for the VHI OpenStack-compatible APIs."""

    def __init__(
        self,
        token: Token,
        verify_ssl: bool = True,
        timeout: int = 60,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            token: Scoped token with catalog endpoints
            verify_ssl: Whether to verify SSL certificates
            timeout: Request timeout in seconds (uploads and downloads are unbounded)
            transport: Optional httpx transport (used by tests)
        """
        self.token = token
        self.verify_ssl = verify_ssl
        self.timeout = timeout
        self.transport = transport
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "VHIClient":
        await self.connect()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    async def connect(self) -> None:
        """Open the HTTP session.

        Raises:
            AuthenticationError: If the token is expired
        """
        if self.token.is_expired():
            raise AuthenticationError(
                f"The auth token for '{self.token.host}' is expired; "
                "re-authenticate using 'vhicli auth'"
            )
        self._client = httpx.AsyncClient(
            verify=self.verify_ssl,
            timeout=self.timeout,
            transport=self.transport,
            headers={"X-Auth-Token": self.token.value, "Accept": "application/json"},
        )

    async def close(self) -> None:
        """Close the HTTP session."""
        if self._client:
            await self._client.aclose()
            self._client = None

    def _ensure_connected(self) -> httpx.AsyncClient:
        """Return the open session.

        Raises:
            RuntimeError: If not connected
        """
        if not self._client:
            raise RuntimeError("Client not connected. Use async with or call connect().")
        return self._client

    def _url(self, service: str, path: str) -> str:
        return f"{self.token.endpoint(service)}/{path.lstrip('/')}"

    @staticmethod
    def _extract_error_message(response: httpx.Response) -> str:
        """Extract an error message from an OpenStack error body.

        Bodies look like ``{"itemNotFound": {"message": ...}}``,
        ``{"NeutronError": {"message": ...}}`` or plain text.
        """
        try:
            data = response.json()
        except ValueError:
            return response.text or f"HTTP {response.status_code}"
        if isinstance(data, dict):
            for value in data.values():
                if isinstance(value, dict) and value.get("message"):
                    return str(value["message"])
            if data.get("message"):
                return str(data["message"])
        return response.text or f"HTTP {response.status_code}"

    def _check_response(self, response: httpx.Response, path: str) -> None:
        """Map an error status code to the matching exception."""
        if response.status_code == 401:
            raise AuthenticationError("Authentication failed or token expired")
        elif response.status_code == 403:
            raise PermissionError(self._extract_error_message(response))
        elif response.status_code == 404:
            raise ResourceNotFoundError("resource", path)
        elif response.status_code >= 400:
            message = self._extract_error_message(response)
            raise APIError(f"[{response.status_code}] {message}", status_code=response.status_code)

    async def _request(
        self,
        service: str,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        json_body: Any = None,
        content: Any = None,
        headers: dict[str, str] | None = None,
        timeout: Any = httpx.USE_CLIENT_DEFAULT,
    ) -> Any:
        """Make one API request.

        Args:
            service: Catalog service type
            method: HTTP method
            path: Path relative to the service endpoint
            params: Query parameters
            json_body: JSON request body
            content: Raw request body (bytes or async iterator)
            headers: Extra request headers
            timeout: Per-request timeout override

        Returns:
            Decoded JSON body, or None for empty responses

        Raises:
            APIError: On API errors or undecodable bodies
            NetworkError: On network errors
            TimeoutError: On timeout
        """
        client = self._ensure_connected()
        request_headers = dict(headers or {})
        if service == "compute":
            request_headers.setdefault("X-OpenStack-Nova-API-Version", COMPUTE_MICROVERSION)

        try:
            response = await client.request(
                method,
                self._url(service, path),
                params=params,
                json=json_body,
                content=content,
                headers=request_headers,
                timeout=timeout,
            )
        except httpx.TimeoutException:
            raise TimeoutError(f"{method} {path} timed out")
        except httpx.NetworkError as e:
            raise NetworkError(f"Network error: {e}")
        except httpx.HTTPError as e:
            raise APIError(f"Unexpected error: {e}")

        self._check_response(response, path)

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            raise APIError(f"Undecodable response from {method} {path}", status_code=response.status_code)

    async def get(self, service: str, path: str, params: dict[str, Any] | None = None) -> Any:
        return await self._request(service, "GET", path, params=params)

    async def post(self, service: str, path: str, json_body: Any = None) -> Any:
        return await self._request(service, "POST", path, json_body=json_body)

    async def delete(self, service: str, path: str) -> Any:
        return await self._request(service, "DELETE", path)

    # Compute: servers

    async def list_servers(self) -> list[dict[str, Any]]:
        """List servers (id and name only)."""
        data = await self.get("compute", "/servers")
        return data.get("servers", [])

    async def get_server(self, server_id: str) -> dict[str, Any]:
        """Get server details."""
        data = await self.get("compute", f"/servers/{server_id}")
        return data["server"]

    async def find_server_id(self, ref: str) -> str:
        """Resolve a server name or ID to its ID."""
        return _match_ref(await self.list_servers(), ref, "server")

    async def create_server(self, request: ServerCreateRequest) -> dict[str, Any]:
        """Submit a server creation request.

        Returns:
            The ``server`` object of the response (``id``, ``links``, ...)
        """
        data = await self.post("compute", "/servers", request.to_body())
        return data["server"]

    async def server_action(self, server_id: str, action: dict[str, Any]) -> Any:
        """POST an action body to ``/servers/{id}/action``."""
        return await self.post("compute", f"/servers/{server_id}/action", action)

    async def reboot_server(self, server_id: str, kind: str = "HARD") -> None:
        await self.server_action(server_id, {"reboot": {"type": kind}})

    async def stop_server(self, server_id: str) -> None:
        await self.server_action(server_id, {"os-stop": None})

    async def pause_server(self, server_id: str) -> None:
        await self.server_action(server_id, {"pause": None})

    async def unpause_server(self, server_id: str) -> None:
        await self.server_action(server_id, {"unpause": None})

    async def attach_volume(self, server_id: str, volume_id: str) -> dict[str, Any]:
        """Attach a volume to a server."""
        data = await self.post(
            "compute",
            f"/servers/{server_id}/os-volume_attachments",
            {"volumeAttachment": {"volumeId": volume_id}},
        )
        return data["volumeAttachment"]

    async def attach_port(self, server_id: str, port_id: str) -> dict[str, Any]:
        """Attach an existing port to a server."""
        data = await self.post(
            "compute",
            f"/servers/{server_id}/os-interface",
            {"interfaceAttachment": {"port_id": port_id}},
        )
        return data["interfaceAttachment"]

    async def get_boot_volume_id(self, server_id: str) -> str:
        """Return the ID of the volume attached as the server's first disk.

        Raises:
            ResourceNotFoundError: If the server has no attached volume
        """
        data = await self.get("compute", f"/servers/{server_id}/os-volume_attachments")
        attachments = data.get("volumeAttachments", [])
        if not attachments:
            raise ResourceNotFoundError("boot volume of server", server_id)
        for attachment in attachments:
            if str(attachment.get("device", "")).endswith("da"):
                return attachment["volumeId"]
        return attachments[0]["volumeId"]

    # Compute: flavors, hypervisors, limits

    async def find_flavor_id(self, ref: str) -> str:
        """Resolve a flavor name or ID to its ID."""
        data = await self.get("compute", "/flavors")
        return _match_ref(data.get("flavors", []), ref, "flavor")

    async def list_hypervisors(self) -> list[dict[str, Any]]:
        """List hypervisors with details."""
        data = await self.get("compute", "/os-hypervisors/detail")
        return data.get("hypervisors", [])

    async def get_hypervisor(self, name: str) -> dict[str, Any]:
        """Get one hypervisor, including the VHI ``resources`` block."""
        data = await self.get("compute", f"/os-hypervisors/{name}")
        return data["hypervisor"]

    async def get_limits(self, reserved: bool = True, tenant_id: str | None = None) -> dict[str, Any]:
        """Get project limits.

        Args:
            reserved: Include reserved resources
            tenant_id: Another project's ID (admin only)
        """
        params: dict[str, Any] = {}
        if reserved:
            params["reserved"] = 1
        if tenant_id:
            params["tenant_id"] = tenant_id
        data = await self.get("compute", "/limits", params=params or None)
        return data.get("limits", {})

    # Image service

    async def list_images(self, params: dict[str, Any] | None = None) -> list[dict[str, Any]]:
        data = await self.get("image", "/v2/images", params=params)
        return data.get("images", [])

    async def get_image(self, image_id: str) -> dict[str, Any]:
        return await self.get("image", f"/v2/images/{image_id}")

    async def find_image_id(self, ref: str) -> str:
        """Resolve an image name to its ID."""
        return _match_ref(await self.list_images({"name": ref}), ref, "image")

    async def create_image(
        self,
        name: str,
        disk_format: str,
        container_format: str = "bare",
        visibility: str = "shared",
    ) -> str:
        """Create image metadata and return the new image ID."""
        data = await self.post(
            "image",
            "/v2/images",
            {
                "name": name,
                "disk_format": disk_format,
                "container_format": container_format,
                "visibility": visibility,
            },
        )
        return data["id"]

    async def upload_image_data(
        self, image_id: str, path: Path, progress: ProgressCallback | None = None
    ) -> None:
        """Stream a local file into an image.

        Args:
            image_id: Image created with :meth:`create_image`
            path: Local file to upload
            progress: Called with the size of every chunk sent
        """

        async def chunks() -> AsyncIterator[bytes]:
            with open(path, "rb") as f:
                while True:
                    chunk = f.read(CHUNK_SIZE)
                    if not chunk:
                        break
                    if progress:
                        progress(len(chunk))
                    yield chunk

        await self._request(
            "image",
            "PUT",
            f"/v2/images/{image_id}/file",
            content=chunks(),
            headers={"Content-Type": "application/octet-stream"},
            timeout=None,
        )

    async def delete_image(self, image_id: str) -> None:
        await self.delete("image", f"/v2/images/{image_id}")

    async def get_image_size(self, image_id: str) -> int:
        """Return the stored size of an image in bytes.

        Raises:
            APIError: If the image service does not know the size yet
        """
        image = await self.get_image(image_id)
        size = image.get("size")
        if size is None:
            raise APIError(f"size of image {image_id} is not known yet")
        return int(size)

    async def set_image_properties(self, image_id: str, properties: dict[str, str]) -> None:
        """Add or replace image properties with a JSON patch."""
        ops = [{"op": "add", "path": f"/{key}", "value": value} for key, value in properties.items()]
        await self._request(
            "image",
            "PATCH",
            f"/v2/images/{image_id}",
            content=json.dumps(ops).encode(),
            headers={"Content-Type": IMAGE_PATCH_TYPE},
        )

    async def download_image(
        self, image_id: str, destination: Path, progress: ProgressCallback | None = None
    ) -> None:
        """Stream image data into a local file.

        A partially written file is removed when the transfer fails.

        Raises:
            VHICliError: If the file cannot be written
        """
        client = self._ensure_connected()
        path = f"/v2/images/{image_id}/file"
        opened = False
        try:
            try:
                async with client.stream(
                    "GET",
                    self._url("image", path),
                    headers={"Accept": "application/octet-stream"},
                    timeout=None,
                ) as response:
                    if response.status_code >= 400:
                        await response.aread()
                        self._check_response(response, path)
                    with open(destination, "wb") as f:
                        opened = True
                        async for chunk in response.aiter_bytes(CHUNK_SIZE):
                            f.write(chunk)
                            if progress:
                                progress(len(chunk))
            except httpx.TimeoutException:
                raise TimeoutError(f"Download of image {image_id} timed out")
            except httpx.NetworkError as e:
                raise NetworkError(f"Network error during download: {e}")
            except httpx.HTTPError as e:
                raise APIError(f"Unexpected error during download: {e}")
            except OSError as e:
                raise VHICliError(f"Failed to write {destination}: {e}")
        except BaseException:
            if opened:
                Path(destination).unlink(missing_ok=True)
            raise

    # Block storage

    async def create_volume(
        self,
        name: str,
        size: int | None = None,
        description: str | None = None,
        volume_type: str | None = None,
        image_id: str | None = None,
    ) -> dict[str, Any]:
        """Create a blank volume, or one populated from an image."""
        volume: dict[str, Any] = {"name": name}
        if size:
            volume["size"] = size
        if description:
            volume["description"] = description
        if volume_type:
            volume["volume_type"] = volume_type
        if image_id:
            volume["imageRef"] = image_id
        data = await self.post("volumev3", "/volumes", {"volume": volume})
        return data["volume"]

    async def get_volume(self, volume_id: str) -> dict[str, Any]:
        data = await self.get("volumev3", f"/volumes/{volume_id}")
        return data["volume"]

    async def find_volume_id(self, ref: str) -> str:
        """Resolve a volume name to its ID."""
        data = await self.get("volumev3", "/volumes", params={"name": ref})
        return _match_ref(data.get("volumes", []), ref, "volume")

    async def delete_volume(self, volume_id: str) -> None:
        await self.delete("volumev3", f"/volumes/{volume_id}")

    async def set_volume_bootable(self, volume_id: str, bootable: bool = True) -> None:
        await self.post(
            "volumev3",
            f"/volumes/{volume_id}/action",
            {"os-set_bootable": {"bootable": bootable}},
        )

    async def upload_volume_to_image(
        self, volume_id: str, image_name: str, disk_format: str = "qcow2"
    ) -> str:
        """Start copying a volume into a new image and return the image ID."""
        data = await self.post(
            "volumev3",
            f"/volumes/{volume_id}/action",
            {
                "os-volume_upload_image": {
                    "image_name": image_name,
                    "force": True,
                    "disk_format": disk_format,
                    "container_format": "bare",
                }
            },
        )
        image_id = (data or {}).get("os-volume_upload_image", {}).get("image_id")
        if not image_id:
            raise APIError(f"no image ID returned when uploading volume {volume_id}")
        return image_id

    # Network service

    async def find_network_id(self, ref: str) -> str:
        """Resolve a network name to its ID."""
        data = await self.get("network", "/v2.0/networks", params={"name": ref})
        return _match_ref(data.get("networks", []), ref, "network")

    async def create_port(
        self, network_id: str, mac_address: str | None = None, name: str | None = None
    ) -> dict[str, Any]:
        """Create a port, optionally with a fixed MAC address."""
        port: dict[str, Any] = {"network_id": network_id}
        if mac_address:
            port["mac_address"] = mac_address
        if name:
            port["name"] = name
        data = await self.post("network", "/v2.0/ports", {"port": port})
        return data["port"]

    async def delete_port(self, port_id: str) -> None:
        await self.delete("network", f"/v2.0/ports/{port_id}")

    # Status lookups used by the poller

    async def get_status(self, kind: str, resource_id: str) -> str:
        """Return the current status string of a server, volume or image."""
        if kind == "server":
            resource = await self.get_server(resource_id)
        elif kind == "volume":
            resource = await self.get_volume(resource_id)
        elif kind == "image":
            resource = await self.get_image(resource_id)
        else:
            raise VHICliError(f"Unknown resource kind '{kind}'")
        return str(resource.get("status", ""))
